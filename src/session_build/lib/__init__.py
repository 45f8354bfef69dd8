from .paths import OutputLayout, format_path
from .digest import entry_digest, heap_stamp, sources_stamp, NO_HEAP
from .graph import Graph
from .queue import SessionInfo, SessionQueue
from .reinstate import Reinstate
from .logging import setup_run_logging
from .jobs import Job, start_job
from .scheduler import Result, Scheduler, Status
