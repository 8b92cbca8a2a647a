"""Contract ABIs used by the relayer: escrow reads, relay entry points and ERC-20 reads."""


def get_escrow_abi():
    return [
        {
            "inputs": [{"name": "user", "type": "address"}],
            "name": "nonces",
            "outputs": [{"name": "", "type": "uint256"}],
            "stateMutability": "view",
            "type": "function",
        },
        {
            "inputs": [{"name": "escrowId", "type": "bytes32"}],
            "name": "getEscrowDetails",
            "outputs": [
                {"name": "buyer", "type": "address"},
                {"name": "seller", "type": "address"},
                {"name": "amount", "type": "uint256"},
                {"name": "deliveryDeadline", "type": "uint256"},
                {"name": "status", "type": "uint8"},
                {"name": "token", "type": "address"},
                {"name": "fundedAt", "type": "uint256"},
                {"name": "settledAt", "type": "uint256"},
                {"name": "disputeResolved", "type": "bool"},
            ],
            "stateMutability": "view",
            "type": "function",
        },
        {
            "anonymous": False,
            "inputs": [
                {"indexed": True, "name": "escrowId", "type": "bytes32"},
                {"indexed": True, "name": "buyer", "type": "address"},
                {"indexed": True, "name": "seller", "type": "address"},
                {"indexed": False, "name": "amount", "type": "uint256"},
                {"indexed": False, "name": "deliveryDeadline", "type": "uint256"},
            ],
            "name": "EscrowCreated",
            "type": "event",
        },
    ]


def get_relayer_abi():
    """Meta-transaction entry points on the trusted forwarder contract."""
    return [
        {
            "inputs": [
                {"name": "seller", "type": "address"},
                {"name": "amount", "type": "uint256"},
                {"name": "token", "type": "address"},
                {"name": "deliveryDeadline", "type": "uint256"},
                {"name": "buyer", "type": "address"},
                {"name": "signature", "type": "bytes"},
            ],
            "name": "relayCreateEscrow",
            "outputs": [{"name": "", "type": "bytes32"}],
            "stateMutability": "nonpayable",
            "type": "function",
        },
        {
            "inputs": [
                {"name": "escrowId", "type": "bytes32"},
                {"name": "buyer", "type": "address"},
                {"name": "signature", "type": "bytes"},
            ],
            "name": "relayFundEscrow",
            "outputs": [],
            "stateMutability": "nonpayable",
            "type": "function",
        },
        {
            "inputs": [
                {"name": "escrowId", "type": "bytes32"},
                {"name": "buyer", "type": "address"},
                {"name": "signature", "type": "bytes"},
            ],
            "name": "relayConfirmDelivery",
            "outputs": [],
            "stateMutability": "nonpayable",
            "type": "function",
        },
        {
            "inputs": [
                {"name": "escrowId", "type": "bytes32"},
                {"name": "documentHash", "type": "bytes32"},
                {"name": "seller", "type": "address"},
                {"name": "signature", "type": "bytes"},
            ],
            "name": "relayStoreDocument",
            "outputs": [],
            "stateMutability": "nonpayable",
            "type": "function",
        },
    ]


def get_erc20_abi():
    return [
        {
            "constant": True,
            "inputs": [{"name": "account", "type": "address"}],
            "name": "balanceOf",
            "outputs": [{"name": "", "type": "uint256"}],
            "stateMutability": "view",
            "type": "function",
        },
        {
            "constant": True,
            "inputs": [
                {"name": "owner", "type": "address"},
                {"name": "spender", "type": "address"},
            ],
            "name": "allowance",
            "outputs": [{"name": "", "type": "uint256"}],
            "stateMutability": "view",
            "type": "function",
        },
    ]
