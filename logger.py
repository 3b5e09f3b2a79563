import logging

from funcy import log_durations


def setupLogging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def info(message: str):
    logging.info(message)


log_duration = log_durations(lambda msg: info("⌛ " + msg))
