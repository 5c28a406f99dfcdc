import sys

from stewart.ui.cli import main

sys.exit(main())
