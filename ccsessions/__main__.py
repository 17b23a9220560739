from ccsessions.cli import main

raise SystemExit(main())
