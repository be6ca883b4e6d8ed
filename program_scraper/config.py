import os
import logging
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv


# CONFIGURATION SECTION

DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)
DEFAULT_ACCEPT_LANGUAGE = 'ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7'


class Config:
    """Configuration manager - loads settings from .env file"""

    def __init__(self):
        load_dotenv()

        # Gemini API Configuration
        self.gemini_api_key = os.getenv('GEMINI_API_KEY', '')
        self.gemini_model = os.getenv('GEMINI_MODEL', 'gemini-2.0-flash')
        self.llm_temperature = float(os.getenv('LLM_TEMPERATURE', '0.1'))
        self.vision_timeout = int(os.getenv('VISION_TIMEOUT', '300'))
        self.llm_pause = float(os.getenv('LLM_PAUSE', '1.0'))

        # Browser Configuration
        self.headless_mode = os.getenv('HEADLESS_MODE', 'true').lower() == 'true'
        self.navigation_timeout = int(os.getenv('NAVIGATION_TIMEOUT', '120000'))

        # HTTP Configuration
        self.request_timeout = int(os.getenv('REQUEST_TIMEOUT', '30'))
        self.request_delay = float(os.getenv('REQUEST_DELAY', '1.5'))
        self.max_retries = int(os.getenv('MAX_RETRIES', '3'))
        self.retry_delay = float(os.getenv('RETRY_DELAY', '2'))
        self.user_agent = os.getenv('USER_AGENT', DEFAULT_USER_AGENT)
        self.accept_language = os.getenv('ACCEPT_LANGUAGE', DEFAULT_ACCEPT_LANGUAGE)

        # Output Configuration
        self.store_path = os.getenv('STORE_PATH', os.path.join('output', 'programs.json'))
        self.log_level = os.getenv('LOG_LEVEL', 'INFO')
        self.log_dir = os.getenv('LOG_DIR', 'logs')

        # Validate configuration
        self._validate()

    def _validate(self):
        """Validate critical configuration"""
        if not self.gemini_api_key:
            logging.warning("GEMINI_API_KEY not set in .env file - LLM extraction disabled")

        # Create output folders if they don't exist
        Path(self.store_path).parent.mkdir(parents=True, exist_ok=True)
        Path(self.log_dir).mkdir(parents=True, exist_ok=True)

    @property
    def request_headers(self):
        """Browser-like headers for static page requests"""
        return {
            'User-Agent': self.user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': self.accept_language,
        }


# LOGGING SETUP

def setup_logging(log_level: str, log_dir: str = 'logs') -> logging.Logger:
    """Configure logging with both file and console output"""

    logger = logging.getLogger('ProgramScraper')
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    if logger.handlers:
        return logger

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_format = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(console_format)

    # File handler
    log_file = os.path.join(log_dir, f'scraper_{datetime.now().strftime("%Y%m%d")}.log')
    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_format = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s - %(message)s'
    )
    file_handler.setFormatter(file_format)

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    return logger
