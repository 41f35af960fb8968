"""Test configuration: put the repo on sys.path and set up a default service.

Tool tests that need a specific workspace or policy configure their own
service with configure_execution_service(). The default here keeps the global
service away from whatever directory pytest was started in.
"""

import os
import sys
import tempfile

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.command_execution import configure_execution_service

configure_execution_service(os.path.realpath(tempfile.gettempdir()))
