"""tgpic – image hosting on top of the Telegram Bot API.

``tgpic.server`` is the FastAPI catalog service, ``tgpic.client`` the
concurrent upload pipeline and CLI, ``tgpic.utils`` code shared by both.
"""

__version__ = "0.3.0"
