# Import specific services where needed:
# from services.session import SessionCoordinator
# from services.authorization import gate

__all__ = []
