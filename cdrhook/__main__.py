import sys

from cdrhook.main import main

sys.exit(main())
