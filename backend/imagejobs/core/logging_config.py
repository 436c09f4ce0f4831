import logging
import os
import sys
from datetime import datetime

from imagejobs.core.config import settings

handlers = [logging.StreamHandler(sys.stdout)]

# LOG_DIR="" disables the file handler
if settings.LOG_DIR:
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    handlers.append(
        logging.FileHandler(
            os.path.join(settings.LOG_DIR, f'imagejobs_{datetime.now().strftime("%Y%m%d")}.log'),
            mode='a'
        )
    )

# configure structured logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=handlers
)

def get_logger(name: str) -> logging.Logger:
    """get a configured logger instance"""
    return logging.getLogger(name)
