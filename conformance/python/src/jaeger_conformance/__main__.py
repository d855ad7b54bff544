from __future__ import annotations

from jaeger_conformance.cli import main

raise SystemExit(main())
