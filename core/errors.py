from PyQt6.QtWidgets import QMessageBox, QWidget


class AppError(Exception):
    def __init__(self, msg: str, title: str = ""):
        super().__init__(msg)
        self.msg = msg
        self.title = title

    def show_warning(self, parent: QWidget):
        QMessageBox.warning(parent, self.title, self.msg)


class InvalidQuadError(AppError, ValueError):
    """Quad coordinates are missing, malformed or not finite."""

    def __init__(self, msg: str, title: str = "Invalid Document Corners"):
        super().__init__(msg, title)


class CropError(AppError):
    """A crop request failed as a whole; no partial output was produced."""

    def __init__(self, msg: str, title: str = "Crop Failed"):
        super().__init__(msg, title)


class CropInProgressError(CropError):
    def __init__(self, msg: str = "A crop is already in progress."):
        super().__init__(msg, title="Crop In Progress")


class CaptureUnavailableError(AppError):
    """The camera could not be opened or returned no image."""

    def __init__(self, msg: str, title: str = "Camera Unavailable"):
        super().__init__(msg, title)
