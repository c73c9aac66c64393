from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    broadcasted when the user logs out
    """

    bubble = True


class UserLoginMessage(Message):
    """
    Fired when user logged, so the screen can refresh
    """

    bubble = True


class SessionExpiredMessage(Message):
    """
    Fired at app level when the server rejected the session (HTTP 401).
    The app answers it by showing the login screen again.
    """

    bubble = True

    def __init__(self, route: str) -> None:
        super().__init__()
        self.route = route


class CartChangedMessage(Message):
    """
    Fired whenever the cart store is invalidated.
    Will trigger a refresh of cart screen and the sidebar badge
    """

    bubble = True


class WishlistChangedMessage(Message):
    """
    Fired whenever the wishlist store is invalidated.
    """

    bubble = True


class ModeSwitchedMessage(Message):
    """
    fired whenever switch_mode is called
    must be fired from app level
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
