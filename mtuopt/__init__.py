"""
MTU Optimizer: Path MTU discovery, stability analysis and safe MTU apply.
"""

__app_name__ = "MTU Optimizer"
__version__ = "2.2.0"
