"""
Utility functions for the container engine
"""

import logging
import subprocess


def setup_logging(verbose=False, debug=False):
    """Setup logging configuration"""
    if debug:
        level = logging.DEBUG
        format_str = '%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s'
    elif verbose:
        level = logging.DEBUG
        format_str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    else:
        level = logging.INFO
        format_str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    logging.basicConfig(
        level=level,
        format=format_str,
        datefmt='%H:%M:%S'
    )


def run_command(command, cwd=None, capture_output=True):
    """Run a shell command and return result"""
    logger = logging.getLogger(__name__)

    if isinstance(command, list):
        cmd_str = ' '.join(command)
    else:
        cmd_str = command
        command = command.split()

    logger.debug(f"Running command: {cmd_str}")

    try:
        result = subprocess.run(
            command,
            cwd=cwd,
            capture_output=capture_output,
            text=True,
            check=True
        )
        return result
    except subprocess.CalledProcessError as e:
        logger.error(f"Command failed: {cmd_str}")
        logger.error(f"Error: {e.stderr}")
        raise


def sanitize_filename(filename):
    """Replace characters that are not allowed in file names"""
    forbidden_chars = '<>:"/\\|?*'
    for char in forbidden_chars:
        filename = filename.replace(char, '_')

    filename = ''.join(char for char in filename if ord(char) >= 32)

    # Trim whitespace and dots
    filename = filename.strip(' .')

    if len(filename) > 200:
        filename = filename[:200]

    return filename or 'untitled'


def suggested_filename(title, extension="epub"):
    """File name offered to the user for an exported package"""
    return f"{sanitize_filename(title)}.{extension}"
