"""RPC messages, conversions, retry logic, the remote scan client and server handlers."""