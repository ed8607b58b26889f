import argparse
import logging
import sys

from fastapi import FastAPI, Response
from fastapi.responses import HTMLResponse
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
import uvicorn

from collector.main import register, reload_collectors
from core.config import settings

logger = logging.getLogger(__name__)

app = FastAPI(title="FastAPI + Prometheus Diskstats Exporter")


@app.get("/", response_class=HTMLResponse)
def index():
    return HTMLResponse(content="""
    <html>
    <head><title>Python Diskstats Exporter</title></head>
    <body>
        <h1>Python Diskstats Exporter</h1>
        <p>Visit <a href="/metrics">/metrics</a> to see Prometheus metrics</p>
        <p>Visit <a href="/metrics_html">/metrics_html</a> for a list of exposed metrics</p>
    </body>
    </html>
    """)


@app.get("/metrics")
def metrics():
    data = generate_latest(register)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


def describe_metrics(raw: str):
    """Collect {name: {"type", "desc"}} from the HELP/TYPE lines of an exposition."""
    metrics = {}

    for line in raw.splitlines():
        if line.startswith("# HELP"):
            _, _, name, desc = line.split(" ", 3)
            metrics.setdefault(name, {})["desc"] = desc
        elif line.startswith("# TYPE"):
            _, _, name, mtype = line.split(" ", 3)
            metrics.setdefault(name, {})["type"] = mtype

    return metrics


@app.get("/metrics_html", response_class=HTMLResponse)
def metrics_html():
    metrics = describe_metrics(generate_latest(register).decode("utf-8"))

    html = """
    <html>
    <head>
        <meta charset="utf-8">
        <title>Metrics</title>
        <style>
            body { font-family: Arial, sans-serif; }
            table { border-collapse: collapse; width: 100%; }
            th, td { border: 1px solid #ddd; padding: 8px; }
            th { background-color: #f4f4f4; text-align: left; }
        </style>
    </head>
    <body>
        <h1>Metrics List</h1>
        <table>
            <tr>
                <th>Metric Name</th>
                <th>Type</th>
                <th>Description</th>
            </tr>
    """

    for name, info in sorted(metrics.items()):
        html += f"""
            <tr>
                <td>{name}</td>
                <td>{info.get("type", "-")}</td>
                <td>{info.get("desc", "-")}</td>
            </tr>
        """

    html += """
        </table>
    </body>
    </html>
    """

    return HTMLResponse(content=html)


if settings.DEV:
    app.add_middleware(CORSMiddleware, allow_origins=["*"])


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Disk I/O statistics exporter")
    parser.add_argument("--web.listen-address", dest="host", default=None,
                        help="Address to listen on for HTTP requests")
    parser.add_argument("--web.listen-port", dest="port", type=int, default=None,
                        help="Port to listen on for HTTP requests")
    parser.add_argument("--log.level", dest="log_level", default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        type=str.upper, help="Override log level")
    parser.add_argument("--path.procfs", dest="procfs", default=None,
                        help="procfs mountpoint.")
    parser.add_argument("--collector.diskstats.ignored-devices", dest="ignored_devices", default=None,
                        help="Regexp of devices to ignore for diskstats.")
    return parser.parse_args(argv)


def apply_args(args):
    """Copy command line overrides onto the process-wide settings."""
    overrides = {
        "HOST": args.host,
        "PORT": args.port,
        "LOG_LEVEL": args.log_level,
        "PATH_PROCFS": args.procfs,
        "DISKSTATS_IGNORED_DEVICES": args.ignored_devices,
    }
    values = settings.model_dump()
    values.update({k: v for k, v in overrides.items() if v is not None})
    # re-validate so a bad regexp on the command line fails here
    validated = type(settings)(**values)
    for k, v in validated.model_dump().items():
        setattr(settings, k, v)


def main(argv=None):
    args = parse_args(argv)
    apply_args(args)
    configure_logging(settings.LOG_LEVEL)
    reload_collectors()

    logger.info(f"Reading diskstats from {settings.PATH_PROCFS}")
    logger.info(f"Ignoring devices matching {settings.DISKSTATS_IGNORED_DEVICES}")
    logger.info(f"Metrics available at http://{settings.HOST}:{settings.PORT}/metrics")
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
    return 0


if __name__ == "__main__":
    sys.exit(main())
