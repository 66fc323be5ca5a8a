import sys

from sql2parquet.cli import main

sys.exit(main())
