"""OXA - GitHub Actions TUI

인증 서브시스템 패키지.
"""

__version__ = "0.1.0"
