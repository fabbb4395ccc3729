import sys
from pathlib import Path


# Put `backend/` on sys.path so tests import `geo.*`, `catchment.*`, `traveltime.*`
# and `main` the same way the app does when run from `backend/`.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))
