import sys

from docker_exporter.cli.main import main

sys.exit(main())
