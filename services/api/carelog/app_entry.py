from __future__ import annotations
import os
import uvicorn

mode = os.environ.get("CARELOG_RUN_MODE", "api").lower()
if mode == "bootstrap":
    from carelog.scripts.bootstrap import main
    main()
else:
    from carelog.app import app
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get('PORT','8080')))
