"""
Configuration module for gaussian_scene.

Contains the default configuration file for scene setup and training.

Files:
    gaussian_config.yaml: Model and optimization hyperparameters
"""

from pathlib import Path

# Path to the configs directory
CONFIGS_DIR = Path(__file__).parent

GAUSSIAN_CONFIG_PATH = CONFIGS_DIR / "gaussian_config.yaml"


def get_default_gaussian_config_path() -> Path:
    """
    Get the path to the default Gaussian scene config file.

    Returns:
        Path: Absolute path to gaussian_config.yaml
    """
    return GAUSSIAN_CONFIG_PATH
