"""Primitive registry mapping primitive types to handlers."""

from tstyengine.exceptions import ConfigurationError
from tstyengine.primitives import BasePrimitiveHandler
from tstyengine.primitives.capture import ScreenshotHandler
from tstyengine.primitives.form import (
    CheckHandler,
    SelectOptionHandler,
    SetInputFilesHandler,
    UncheckHandler,
)
from tstyengine.primitives.keyboard import FillHandler, PressHandler, TypeHandler
from tstyengine.primitives.locators import LocatorHandler
from tstyengine.primitives.mouse import (
    BlurHandler,
    ClickHandler,
    DblclickHandler,
    DispatchEventHandler,
    DragAndDropHandler,
    FocusHandler,
    HoverHandler,
    ScrollHandler,
    TapHandler,
)
from tstyengine.primitives.navigation import (
    GoBackHandler,
    GoForwardHandler,
    GotoHandler,
    ReloadHandler,
    SetContentHandler,
)
from tstyengine.primitives.page import (
    BringToFrontHandler,
    SetExtraHTTPHeadersHandler,
    SetViewportSizeHandler,
)
from tstyengine.primitives.script import EvaluateHandler
from tstyengine.primitives.wait import (
    WaitForEventHandler,
    WaitForFunctionHandler,
    WaitForLoadStateHandler,
    WaitForSelectorHandler,
    WaitForTimeoutHandler,
    WaitForURLHandler,
)

PRIMITIVE_REGISTRY: dict[str, type[BasePrimitiveHandler]] = {
    "goto": GotoHandler,
    "navigate": GotoHandler,
    "goBack": GoBackHandler,
    "goForward": GoForwardHandler,
    "reload": ReloadHandler,
    "setContent": SetContentHandler,
    "click": ClickHandler,
    "dblclick": DblclickHandler,
    "hover": HoverHandler,
    "tap": TapHandler,
    "focus": FocusHandler,
    "blur": BlurHandler,
    "dragAndDrop": DragAndDropHandler,
    "scroll": ScrollHandler,
    "dispatchEvent": DispatchEventHandler,
    "fill": FillHandler,
    "type": TypeHandler,
    "press": PressHandler,
    "check": CheckHandler,
    "uncheck": UncheckHandler,
    "selectOption": SelectOptionHandler,
    "setInputFiles": SetInputFilesHandler,
    "waitForSelector": WaitForSelectorHandler,
    "waitForTimeout": WaitForTimeoutHandler,
    "waitForLoadState": WaitForLoadStateHandler,
    "waitForFunction": WaitForFunctionHandler,
    "waitForURL": WaitForURLHandler,
    "waitForEvent": WaitForEventHandler,
    "screenshot": ScreenshotHandler,
    "evaluate": EvaluateHandler,
    "locator": LocatorHandler,
    "getByRole": LocatorHandler,
    "getByText": LocatorHandler,
    "getByLabel": LocatorHandler,
    "getByPlaceholder": LocatorHandler,
    "getByAltText": LocatorHandler,
    "getByTitle": LocatorHandler,
    "getByTestId": LocatorHandler,
    "setViewportSize": SetViewportSizeHandler,
    "setExtraHTTPHeaders": SetExtraHTTPHeadersHandler,
    "bringToFront": BringToFrontHandler,
}


def get_handler(primitive_type: str) -> BasePrimitiveHandler:
    """Get a handler instance for the given primitive type."""
    handler_cls = PRIMITIVE_REGISTRY.get(primitive_type)
    if handler_cls is None:
        raise ConfigurationError(f"No handler registered for primitive '{primitive_type}'")
    return handler_cls()
