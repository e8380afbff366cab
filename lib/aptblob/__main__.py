import sys

from aptblob.cli import main


sys.exit(main())
