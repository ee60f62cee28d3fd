"""
Plain-text persistence of 4x4 rigid transforms.
"""

from pathlib import Path
from typing import Union

import numpy as np

from ..geometry.transforms import validate_transform
from ..utils.logging import setup_logger

logger = setup_logger(__name__)


def save_transform_matrix(transform: np.ndarray, output_file: Union[str, Path]) -> None:
    """Save a transformation matrix to a text file.

    Args:
        transform: 4x4 transformation matrix
        output_file: Path to output file
    """
    T = validate_transform(transform)
    output_path = Path(output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    np.savetxt(output_path, T, fmt='%.18e', header='4x4 transformation matrix')
    logger.info("Saved transformation matrix to %s", output_path)


def load_transform_matrix(input_file: Union[str, Path]) -> np.ndarray:
    """Load a transformation matrix from a text file.

    Args:
        input_file: Path to input file

    Returns:
        4x4 transformation matrix

    Raises:
        InvalidInputError: If the file does not hold a finite 4x4 matrix
    """
    T = validate_transform(np.loadtxt(input_file))
    logger.info("Loaded transformation matrix from %s", input_file)
    return T
