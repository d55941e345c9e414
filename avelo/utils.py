import os
import shutil
from typing import Any, Dict, List, Optional

import ngs_tools as ngs
import psutil

from . import config
from .logging import logger

run_executable = ngs.utils.run_executable
open_as_text = ngs.utils.open_as_text
all_exists = ngs.utils.all_exists


class UnsupportedOSException(Exception):
    pass


class AveloException(Exception):
    pass


def get_salmon_binary_path() -> str:
    """Get the path to the salmon binary.

    The binary is looked up in the following order:
    1. The path in the `AVELO_SALMON` environment variable
    2. The platform-dependent binary included with the installation, if any
    3. The first `salmon` executable on the `PATH`

    Returns:
        Path to the binary

    Raises:
        UnsupportedOSException: If no salmon binary could be found
    """
    path = os.environ.get(config.SALMON_ENV_VARIABLE)
    if path:
        if not os.path.exists(path):
            raise UnsupportedOSException(
                f'{config.SALMON_ENV_VARIABLE} is set to {path}, but this file does not exist.'
            )
        return path

    bin_filename = 'salmon.exe' if config.PLATFORM == 'windows' else 'salmon'
    path = os.path.join(config.BINS_DIR, config.PLATFORM, 'salmon', bin_filename)
    if os.path.exists(path):
        return path

    path = shutil.which('salmon')
    if path is None:
        raise UnsupportedOSException(
            f'Failed to find a salmon binary for this operating system ({config.PLATFORM}). '
            f'Install salmon or set {config.SALMON_ENV_VARIABLE} to its path.'
        )
    return path


def get_salmon_version() -> str:
    """Get the version of the salmon binary in use.

    Returns:
        Version string
    """
    p, stdout, stderr = run_executable([get_salmon_binary_path(), '--version'], quiet=True)
    # salmon prints `salmon x.y.z`
    return stdout.strip().split()[-1]


def combine_arguments(args: Dict[str, Any], additional: Dict[str, Any]) -> Dict[str, Any]:
    """Combine two dictionaries representing command-line arguments.

    Any duplicate keys will be merged according to the following procedure:
    1. If the value in both dictionaries are lists, the two lists are combined.
    2. Otherwise, the value in the first dictionary is OVERWRITTEN.

    Args:
        args: Original command-line arguments
        additional: Additional command-line arguments

    Returns:
        Combined command-line arguments
    """
    new_args = args.copy()

    for key, value in additional.items():
        if key in new_args and isinstance(value, list) and isinstance(new_args[key], list):
            new_args[key] = new_args[key] + value
        else:
            new_args[key] = value

    return new_args


def arguments_to_list(args: Dict[str, Any]) -> List[Any]:
    """Convert a dictionary of command-line arguments to a list.

    Arguments with a value of `None` are treated as flags and are added
    without a value.

    Args:
        args: Command-line arguments

    Returns:
        List of command-line arguments
    """
    arguments = []
    for key, value in args.items():
        arguments.append(key)
        if isinstance(value, list):
            arguments.extend(value)
        elif value is not None:
            arguments.append(value)
    return arguments


def parse_overrides(overrides: Optional[str]) -> Dict[str, Any]:
    """Parse a string of free-form command-line arguments into a dictionary
    that can be combined with :func:`combine_arguments`.

    Args:
        overrides: Arguments as they would be typed on the command line,
            i.e. `--incompatPrior 0.0 --validateMappings`

    Returns:
        Dictionary of arguments. Flags without values map to `None`, and
        arguments with multiple values map to a list.
    """
    if not overrides:
        return {}

    # Strip any quotes or double-quotes because those shouldn't be part of the string
    overrides = overrides.strip('\"\'')
    parsed = {}
    arg = None
    for part in overrides.split():
        if part.startswith('-'):
            # Negative numbers are values, not arguments
            try:
                float(part)
                parsed.setdefault(arg, []).append(part)
                continue
            except ValueError:
                pass
            arg = part
            parsed.setdefault(arg, [])
        else:
            parsed.setdefault(arg, []).append(part)

    if None in parsed:
        raise AveloException(f'Overrides must start with an argument, but got `{overrides}`')

    cleaned = {}
    for arg, parts in parsed.items():
        if not parts:
            cleaned[arg] = None
        elif len(parts) == 1:
            cleaned[arg] = parts[0]
        else:
            cleaned[arg] = parts
    return cleaned


def get_available_memory() -> int:
    """Get total amount of available memory (total memory - used memory) in bytes.

    Returns:
        Available memory in bytes
    """
    return psutil.virtual_memory().available


def check_memory():
    """Log a warning if the available memory is below the recommended amount.
    """
    available_memory = get_available_memory()
    if available_memory < config.RECOMMENDED_MEMORY:
        logger.warning(
            f'There is only {available_memory / (1024 ** 3):.2f} GB of free memory on the machine. '
            f'It is highly recommended to have at least {config.RECOMMENDED_MEMORY // (1024 ** 3)} GB '
            'free when running salmon. Continuing may cause it to crash with an out-of-memory error.'
        )


def read_table_column(path: str, skip_header: bool = False) -> List[str]:
    """Read the first column of a plaintext or gzipped whitespace-delimited file,
    ignoring empty lines.

    Args:
        path: Path to file
        skip_header: Whether the first line is a header

    Returns:
        List of values in the first column
    """
    values = []
    with open_as_text(path, 'r') as f:
        if skip_header:
            next(f, None)
        for line in f:
            if line.isspace():
                continue
            values.append(line.split()[0])
    return values
