# SPDX-License-Identifier: GPL-3.0-only
"""Phone verification v1 messages and gRPC stubs.

The modules are compiled from ``protos/v1/otp.proto`` by grpcio-tools when
this package is imported, so no generated files are kept in the tree.
"""

import grpc

otp_pb2, otp_pb2_grpc = grpc.protos_and_services("protos/v1/otp.proto")
