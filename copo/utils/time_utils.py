import pytz
from datetime import datetime

from copo.config import Config

def get_local_time():
    """
    Returns the current time in the configured campus timezone as a naive datetime.
    """
    return datetime.now(pytz.timezone(Config.TIMEZONE)).replace(tzinfo=None)
