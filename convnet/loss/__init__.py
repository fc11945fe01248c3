from .MSELoss import MSELoss

__all__ = ["MSELoss"]
