"""
Exceptions raised by the CMS client
"""
from typing import List, Optional


class CMSError(Exception):
    """Base class for all CMS client errors"""


class TransportError(CMSError):
    """Network, DNS or TLS failure that survived the certificate fallback"""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class DecodeError(CMSError):
    """Response body is not a JSON object of the expected shape"""

    def __init__(self, message: str, action: Optional[str] = None):
        super().__init__(message)
        self.action = action


class APIResultError(CMSError):
    """HTTP request succeeded but the JSON ``result`` field is non-zero"""

    def __init__(self, code: int, action: Optional[str] = None):
        self.code = code
        self.action = action
        super().__init__(f"{action or 'request'} failed (result code {code})")


class AuthError(CMSError):
    """Login failed. ``code`` is set when the server answered with a result code."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class HierarchyCycleError(CMSError):
    """Company parent ids form a cycle"""

    def __init__(self, cycle: List[int]):
        self.cycle = list(cycle)
        path = ' -> '.join(str(node_id) for node_id in self.cycle)
        super().__init__(f"Company hierarchy contains a cycle: {path}")
