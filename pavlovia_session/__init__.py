"""
pavlovia-session: records the results of a behavioral experiment against
pavlovia.org by opening a session, uploading one results file and closing
the session again.
"""

__version__ = "1.0.0"

from pavlovia_session.plugin import Pavlovia  # noqa: E402

__all__ = ["Pavlovia", "__version__"]
