from .faststart import faststart_router

__all__ = ["faststart_router"]
