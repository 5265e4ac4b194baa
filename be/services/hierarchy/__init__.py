from services.hierarchy.folder_tree import FolderTree

__all__ = ["FolderTree"]
