from otpb.cli.app import main

main()
