import sys

from bpmn_rewrite.cli import main

sys.exit(main())
