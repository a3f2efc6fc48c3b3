# Shared utilities for the subtitle correction tools
import os
import re
import logging
from typing import List, Optional, Union


def setup_logging(name: Optional[str], logfile: str) -> logging.Logger:
    """
    Configure and return a logger that writes to 'logfile' and stdout.

    Passing None configures the root logger, which is what the library
    functions log through. Handlers are only added once per logger name.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        os.makedirs(os.path.dirname(logfile) or '.', exist_ok=True)
        fmt = logging.Formatter('%(asctime)s %(levelname)s %(message)s')
        handler = logging.FileHandler(logfile, encoding='utf-8')
        handler.setFormatter(fmt)
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        logger.addHandler(console)

    return logger


def read_text(path: str) -> str:
    """Read a UTF-8 text file, dropping a leading byte-order mark."""
    with open(path, encoding='utf-8-sig') as f:
        return f.read()


def write_text(path: str, content: str) -> None:
    """Write UTF-8 text, creating the parent directory when needed."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(content)


def natural_sort_key(name: str) -> List[Union[int, str]]:
    """Sort key that orders '2_text.txt' before '10_text.txt', ignoring case."""
    parts = re.split(r'(\d+)', name)
    # odd positions hold the captured digit runs
    return [int(part) if i % 2 else part.lower() for i, part in enumerate(parts)]
