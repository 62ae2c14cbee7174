from .grid_search_engine import GridSearchEngine

__all__ = ['GridSearchEngine']
