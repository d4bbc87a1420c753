import argparse
import asyncio
from pathlib import Path

from .api_client import AttendanceApiClient
from .config import API_BASE_URL, CAMERA_INDEX, DEFAULT_LINE, DETECTION_TIMEOUT_SECONDS, LED_INDEX_MAX, MATCH_THRESHOLD
from .exceptions import AttendanceError
from .kiosk import KioskRuntime, run_interactive, today
from .logger import setup_logger
from .models import STATIONS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Production line face attendance kiosk")
    parser.add_argument("--api", default=API_BASE_URL, help="Attendance store base URL")

    subparsers = parser.add_subparsers(dest="command", required=True)

    kiosk = subparsers.add_parser("kiosk", help="Run the interactive attendance kiosk")
    kiosk.add_argument("--line", default=DEFAULT_LINE, help="Production line")
    kiosk.add_argument("--station", choices=sorted(STATIONS), default=None, help="Only match operators of this station")
    kiosk.add_argument("--camera", type=int, default=CAMERA_INDEX, help="Webcam index")
    kiosk.add_argument(
        "--threshold",
        type=float,
        default=MATCH_THRESHOLD,
        help="Maximum descriptor distance accepted as a match",
    )
    kiosk.add_argument(
        "--detection-timeout",
        type=float,
        default=DETECTION_TIMEOUT_SECONDS,
        help="Seconds allowed for capturing and describing one frame",
    )

    attendance = subparsers.add_parser("attendance", help="List attendance records of a day")
    attendance.add_argument("--line", default=DEFAULT_LINE, help="Production line")
    attendance.add_argument("--date", default=None, help="Day as YYYY-MM-DD (default: today)")

    enroll = subparsers.add_parser("enroll", help="Upload a photo and add an operator")
    enroll.add_argument("--line", default=DEFAULT_LINE, help="Production line")
    enroll.add_argument("--name", required=True, help="Operator name")
    enroll.add_argument("--employee-id", required=True, help="Employee ID")
    enroll.add_argument("--station", required=True, choices=sorted(STATIONS), help="Assigned station")
    enroll.add_argument("--led-index", type=int, required=True, help=f"LED index (0-{LED_INDEX_MAX})")
    enroll.add_argument("--photo", type=Path, required=True, help="Reference face photo")

    serve = subparsers.add_parser("serve", help="Run the attendance store API")
    serve.add_argument("--host", default="0.0.0.0", help="Host interface")
    serve.add_argument("--port", type=int, default=8000, help="Port")

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = setup_logger("main")

    try:
        if args.command == "kiosk":
            runtime = KioskRuntime(
                line=args.line,
                station=args.station,
                api=AttendanceApiClient(base_url=args.api),
                camera_index=args.camera,
                threshold=args.threshold,
                detection_timeout=args.detection_timeout,
            )
            return asyncio.run(run_interactive(runtime))

        if args.command == "attendance":
            day = args.date or today()
            records = AttendanceApiClient(base_url=args.api).list_attendance(args.line, day)
            if not records:
                print(f"No attendance recorded on {args.line} for {day}.")
                return 0

            print(f"{'Operator':<28} {'Timestamp'}")
            print("-" * 60)
            for record in records:
                print(f"{record.operator_name or record.operator_id:<28} {record.timestamp}")
            return 0

        if args.command == "enroll":
            if not 0 <= args.led_index <= LED_INDEX_MAX:
                parser.error(f"--led-index must be between 0 and {LED_INDEX_MAX}")
            api = AttendanceApiClient(base_url=args.api)
            image_path = api.upload_photo(args.photo)
            operator = api.create_operator(
                line=args.line,
                name=args.name,
                employee_id=args.employee_id,
                station=args.station,
                image_path=image_path,
                led_index=args.led_index,
            )
            print(f"Operator {operator.name} added with id {operator.id} (LED {operator.led_index}).")
            return 0

        if args.command == "serve":
            import uvicorn

            uvicorn.run("attendance_store.main:app", host=args.host, port=args.port, log_level="info")
            return 0

    except AttendanceError as exc:
        logger.error("Application error: %s", exc)
        print(f"Error: {exc}")
        return 1
    except KeyboardInterrupt:
        print("\nStopped by user.")
        return 1
    except Exception as exc:
        logger.exception("Unexpected failure")
        print(f"Unexpected error: {exc}")
        return 1

    parser.print_help()
    return 1
