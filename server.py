import uvicorn  # type: ignore

from erp_access.utils import get_logger

log = get_logger("erp_access.server")

if __name__ == "__main__":
    log.info("Running server")
    uvicorn.run("erp_access.main:app", reload=True, host="127.0.0.1", port=8000)
