"""
helpers for converting values from one format to a different one
"""
from datetime import datetime

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M'


def format_epoch(epoch: float) -> str:
    """
    Convert the given epoch seconds to a readable local time string.
    Format: TIMESTAMP_FORMAT
    :param epoch: seconds since the epoch
    :return: formatted time
    """
    return datetime.fromtimestamp(epoch).strftime(TIMESTAMP_FORMAT)


def age_threshold_minutes(full_lifetime: int, keep: int) -> int:
    """
    Age in minutes after which a full backup chain expires.
    :param full_lifetime: lifetime of a full backup in seconds
    :param keep: number of full backup generations to keep
    :return: truncated minutes
    """
    return full_lifetime * keep // 60


def parse_memory(value: str or int) -> str:
    """
    Normalize the --use-memory value of the engine. Plain numbers are bytes.
    :param value: e.g. 1024M, 2G or 1073741824
    :return: value accepted by the engine
    """
    text = str(value).strip().upper()
    if not text:
        raise ValueError('use_memory must not be empty')
    number, suffix = (text[:-1], text[-1]) if text[-1] in 'KMGT' else (text, '')
    if not number.isdigit() or int(number) <= 0:
        raise ValueError(f'Invalid memory value: {value}')
    return f'{int(number)}{suffix}'
