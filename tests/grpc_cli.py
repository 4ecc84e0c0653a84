"""CLI tool for testing the gRPC phone verification methods"""

import argparse
import os
import sys

import grpc

from protos.v1 import otp_pb2, otp_pb2_grpc


def print_response(response):
    """Pretty print a response message"""
    print("\n" + "=" * 60)
    print("RESPONSE:")
    print("=" * 60)
    for field, value in response.ListFields():
        print(f"  {field.name}: {value}")
    print("=" * 60 + "\n")


def send(stub, args):
    """Request an OTP"""
    print("\n>>> Sending OTP...\n")
    request = otp_pb2.OTPRequest(phone=args.phone, action="send")
    response = stub.ProcessOTPRequest(request)
    print_response(response)


def verify(stub, args):
    """Verify an OTP, prompting for the code if not given"""
    otp = args.otp or input("Enter OTP code: ").strip()
    print("\n>>> Verifying OTP...\n")
    request = otp_pb2.OTPRequest(phone=args.phone, action="verify", otp=otp)
    response = stub.ProcessOTPRequest(request)
    print_response(response)


def flow(stub, args):
    """Request an OTP then verify it"""
    send(stub, args)
    verify(stub, args)


def main():
    parser = argparse.ArgumentParser(description="gRPC Phone Verification Testing Tool")

    parser.add_argument(
        "method", choices=["send", "verify", "flow"], help="Method to test"
    )
    parser.add_argument("--phone", "-p", required=True, help="Phone number")
    parser.add_argument("--otp", "-o", help="OTP code (verify only)")
    parser.add_argument(
        "--host", default=os.getenv("GRPC_HOST", "localhost"), help="gRPC host"
    )
    parser.add_argument(
        "--port", default=os.getenv("GRPC_PORT", "8000"), help="gRPC port"
    )

    args = parser.parse_args()

    address = f"{args.host}:{args.port}"
    print(f"\nConnecting to {address}...")

    channel = grpc.insecure_channel(address)

    try:
        stub = otp_pb2_grpc.PhoneVerificationStub(channel)
        {"send": send, "verify": verify, "flow": flow}[args.method](stub, args)

    except grpc.RpcError as e:
        print(f"\n✗ gRPC Error: [{e.code()}]")
        print(f"   {e.details()}\n")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n\nCancelled by user")
        sys.exit(0)
    finally:
        channel.close()


if __name__ == "__main__":
    main()
