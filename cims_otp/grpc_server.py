# SPDX-License-Identifier: GPL-3.0-only
"""gRPC server for the phone verification service."""

from concurrent import futures

import grpc

from base_logger import get_logger
from cims_otp.db_models import OTP, OTPIssuance
from cims_otp.grpc_otp_services.service import SERVICE_NAME, PhoneVerificationService
from cims_otp.utils import create_tables, get_configs, get_int_config
from protos.v1 import otp_pb2_grpc

logger = get_logger("otp.grpc.server")


def create_server(servicer=None, max_workers=None):
    """
    Create a gRPC server with the phone verification service registered.

    Args:
        servicer (PhoneVerificationService, optional): Servicer to register.
        max_workers (int, optional): Thread pool size. Defaults to
            GRPC_MAX_WORKERS.

    Returns:
        grpc.Server: The unstarted server.
    """
    max_workers = max_workers or get_int_config("GRPC_MAX_WORKERS", 10)
    server = grpc.server(futures.ThreadPoolExecutor(max_workers=max_workers))
    otp_pb2_grpc.add_PhoneVerificationServicer_to_server(
        servicer or PhoneVerificationService(), server
    )
    return server


def serve():
    """Starts the gRPC server and blocks until termination."""
    hostname = get_configs("GRPC_HOST", default_value="0.0.0.0")
    port = get_configs("GRPC_PORT", default_value="8000")
    address = f"{hostname}:{port}"

    create_tables([OTP, OTPIssuance])

    server = create_server()
    server.add_insecure_port(address)
    server.start()
    logger.info("%s listening on %s", SERVICE_NAME, address)

    try:
        server.wait_for_termination()
    except KeyboardInterrupt:
        logger.info("Shutting down gRPC server...")
        server.stop(grace=5)


if __name__ == "__main__":
    serve()
