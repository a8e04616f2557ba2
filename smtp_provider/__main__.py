import sys

from smtp_provider.cli import main

sys.exit(main())
