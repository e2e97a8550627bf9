"""Run the bulk import API under uvicorn using ``SERVER_*`` settings."""
import uvicorn

from jobimport.config import settings


def run() -> None:
    server = settings.server
    print(f"{settings.app_name} {settings.version} on {server.host}:{server.port}")
    print(f"Database: {settings.db.display_target}")
    print(f"Uploads: {settings.storage.upload_dir}")
    print(f"Scheduled imports: {'polling every %ss' % settings.imports.scheduler_interval_seconds if settings.imports.scheduler_enabled else 'off'}")

    uvicorn.run(
        "jobimport.api:app",
        host=server.host,
        port=server.port,
        reload=server.reload,
        reload_dirs=["jobimport", "config"] if server.reload else None,
        log_level=settings.logging.level.lower(),
    )


if __name__ == "__main__":
    run()
