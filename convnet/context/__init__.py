from .TrainingContext import TrainingContext, ContextState

__all__ = ["TrainingContext", "ContextState"]
