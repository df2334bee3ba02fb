import sys

from term_relay.server import main

sys.exit(main())
