"""Run the API server: ``python -m tablescope``."""
from tablescope.api.server import main

main()
