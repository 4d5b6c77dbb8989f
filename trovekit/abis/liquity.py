# /trovekit/abis/liquity.py
# Subsets of the deployed contract ABIs; only what the engine calls.
TROVE_MANAGER_ABI = [
    {"inputs": [], "name": "getTroveOwnersCount", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "address", "name": "", "type": "address"}], "name": "Troves", "outputs": [{"internalType": "uint256", "name": "debt", "type": "uint256"}, {"internalType": "uint256", "name": "coll", "type": "uint256"}, {"internalType": "uint256", "name": "stake", "type": "uint256"}, {"internalType": "enum TroveManager.Status", "name": "status", "type": "uint8"}, {"internalType": "uint128", "name": "arrayIndex", "type": "uint128"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "address", "name": "", "type": "address"}], "name": "rewardSnapshots", "outputs": [{"internalType": "uint256", "name": "ETH", "type": "uint256"}, {"internalType": "uint256", "name": "LUSDDebt", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "L_ETH", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "L_LUSDDebt", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "baseRate", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "lastFeeOperationTime", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "uint256", "name": "_LUSDamount", "type": "uint256"}, {"internalType": "address", "name": "_firstRedemptionHint", "type": "address"}, {"internalType": "address", "name": "_upperPartialRedemptionHint", "type": "address"}, {"internalType": "address", "name": "_lowerPartialRedemptionHint", "type": "address"}, {"internalType": "uint256", "name": "_partialRedemptionHintNICR", "type": "uint256"}, {"internalType": "uint256", "name": "_maxIterations", "type": "uint256"}, {"internalType": "uint256", "name": "_maxFeePercentage", "type": "uint256"}], "name": "redeemCollateral", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [{"internalType": "address", "name": "_borrower", "type": "address"}], "name": "liquidate", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [{"internalType": "address[]", "name": "_troveArray", "type": "address[]"}], "name": "batchLiquidateTroves", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [{"internalType": "uint256", "name": "_n", "type": "uint256"}], "name": "liquidateTroves", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"anonymous": False, "inputs": [{"indexed": False, "internalType": "uint256", "name": "_attemptedLUSDAmount", "type": "uint256"}, {"indexed": False, "internalType": "uint256", "name": "_actualLUSDAmount", "type": "uint256"}, {"indexed": False, "internalType": "uint256", "name": "_ETHSent", "type": "uint256"}, {"indexed": False, "internalType": "uint256", "name": "_ETHFee", "type": "uint256"}], "name": "Redemption", "type": "event"},
]

BORROWER_OPERATIONS_ABI = [
    {"inputs": [{"internalType": "uint256", "name": "_maxFeePercentage", "type": "uint256"}, {"internalType": "uint256", "name": "_LUSDAmount", "type": "uint256"}, {"internalType": "address", "name": "_upperHint", "type": "address"}, {"internalType": "address", "name": "_lowerHint", "type": "address"}], "name": "openTrove", "outputs": [], "stateMutability": "payable", "type": "function"},
    {"inputs": [{"internalType": "uint256", "name": "_maxFeePercentage", "type": "uint256"}, {"internalType": "uint256", "name": "_collWithdrawal", "type": "uint256"}, {"internalType": "uint256", "name": "_LUSDChange", "type": "uint256"}, {"internalType": "bool", "name": "_isDebtIncrease", "type": "bool"}, {"internalType": "address", "name": "_upperHint", "type": "address"}, {"internalType": "address", "name": "_lowerHint", "type": "address"}], "name": "adjustTrove", "outputs": [], "stateMutability": "payable", "type": "function"},
    {"inputs": [], "name": "closeTrove", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [], "name": "claimCollateral", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"anonymous": False, "inputs": [{"indexed": True, "internalType": "address", "name": "_borrower", "type": "address"}, {"indexed": False, "internalType": "uint256", "name": "_debt", "type": "uint256"}, {"indexed": False, "internalType": "uint256", "name": "_coll", "type": "uint256"}, {"indexed": False, "internalType": "uint256", "name": "stake", "type": "uint256"}, {"indexed": False, "internalType": "uint8", "name": "operation", "type": "uint8"}], "name": "TroveUpdated", "type": "event"},
    {"anonymous": False, "inputs": [{"indexed": True, "internalType": "address", "name": "_borrower", "type": "address"}, {"indexed": False, "internalType": "uint256", "name": "_LUSDFee", "type": "uint256"}], "name": "LUSDBorrowingFeePaid", "type": "event"},
]

SORTED_TROVES_ABI = [
    {"inputs": [], "name": "getFirst", "outputs": [{"internalType": "address", "name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "getLast", "outputs": [{"internalType": "address", "name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "address", "name": "_id", "type": "address"}], "name": "getNext", "outputs": [{"internalType": "address", "name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "address", "name": "_id", "type": "address"}], "name": "getPrev", "outputs": [{"internalType": "address", "name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "uint256", "name": "_NICR", "type": "uint256"}, {"internalType": "address", "name": "_prevId", "type": "address"}, {"internalType": "address", "name": "_nextId", "type": "address"}], "name": "findInsertPosition", "outputs": [{"internalType": "address", "name": "", "type": "address"}, {"internalType": "address", "name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
]

HINT_HELPERS_ABI = [
    {"inputs": [{"internalType": "uint256", "name": "_CR", "type": "uint256"}, {"internalType": "uint256", "name": "_numTrials", "type": "uint256"}, {"internalType": "uint256", "name": "_inputRandomSeed", "type": "uint256"}], "name": "getApproxHint", "outputs": [{"internalType": "address", "name": "hintAddress", "type": "address"}, {"internalType": "uint256", "name": "diff", "type": "uint256"}, {"internalType": "uint256", "name": "latestRandomSeed", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "uint256", "name": "_LUSDamount", "type": "uint256"}, {"internalType": "uint256", "name": "_price", "type": "uint256"}, {"internalType": "uint256", "name": "_maxIterations", "type": "uint256"}], "name": "getRedemptionHints", "outputs": [{"internalType": "address", "name": "firstRedemptionHint", "type": "address"}, {"internalType": "uint256", "name": "partialRedemptionHintNICR", "type": "uint256"}, {"internalType": "uint256", "name": "truncatedLUSDamount", "type": "uint256"}], "stateMutability": "view", "type": "function"},
]

PRICE_FEED_ABI = [
    {"inputs": [], "name": "fetchPrice", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "nonpayable", "type": "function"},
]

POOL_ABI = [
    {"inputs": [], "name": "getETH", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "getLUSDDebt", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
]

STABILITY_POOL_ABI = [
    {"inputs": [{"internalType": "uint256", "name": "_amount", "type": "uint256"}, {"internalType": "address", "name": "_frontEndTag", "type": "address"}], "name": "provideToSP", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [{"internalType": "uint256", "name": "_amount", "type": "uint256"}], "name": "withdrawFromSP", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [{"internalType": "address", "name": "_upperHint", "type": "address"}, {"internalType": "address", "name": "_lowerHint", "type": "address"}], "name": "withdrawETHGainToTrove", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [], "name": "getTotalLUSDDeposits", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "address", "name": "", "type": "address"}], "name": "deposits", "outputs": [{"internalType": "uint256", "name": "initialValue", "type": "uint256"}, {"internalType": "address", "name": "frontEndTag", "type": "address"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "address", "name": "_depositor", "type": "address"}], "name": "getCompoundedLUSDDeposit", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "address", "name": "_depositor", "type": "address"}], "name": "getDepositorETHGain", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "address", "name": "_depositor", "type": "address"}], "name": "getDepositorLQTYGain", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "address", "name": "", "type": "address"}], "name": "frontEnds", "outputs": [{"internalType": "uint256", "name": "kickbackRate", "type": "uint256"}, {"internalType": "bool", "name": "registered", "type": "bool"}], "stateMutability": "view", "type": "function"},
]

COLL_SURPLUS_POOL_ABI = [
    {"inputs": [{"internalType": "address", "name": "_account", "type": "address"}], "name": "getCollateral", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
]

LUSD_TOKEN_ABI = [
    {"inputs": [{"internalType": "address", "name": "account", "type": "address"}], "name": "balanceOf", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
]

MULTI_TROVE_GETTER_ABI = [
    {"inputs": [{"internalType": "int256", "name": "_startIdx", "type": "int256"}, {"internalType": "uint256", "name": "_count", "type": "uint256"}], "name": "getMultipleSortedTroves", "outputs": [{"components": [{"internalType": "address", "name": "owner", "type": "address"}, {"internalType": "uint256", "name": "debt", "type": "uint256"}, {"internalType": "uint256", "name": "coll", "type": "uint256"}, {"internalType": "uint256", "name": "stake", "type": "uint256"}, {"internalType": "uint256", "name": "snapshotETH", "type": "uint256"}, {"internalType": "uint256", "name": "snapshotLUSDDebt", "type": "uint256"}], "internalType": "struct MultiTroveGetter.CombinedTroveData[]", "name": "_troves", "type": "tuple[]"}], "stateMutability": "view", "type": "function"},
]

CONTRACT_ABIS = {
    "troveManager": TROVE_MANAGER_ABI,
    "borrowerOperations": BORROWER_OPERATIONS_ABI,
    "sortedTroves": SORTED_TROVES_ABI,
    "hintHelpers": HINT_HELPERS_ABI,
    "priceFeed": PRICE_FEED_ABI,
    "activePool": POOL_ABI,
    "defaultPool": POOL_ABI,
    "stabilityPool": STABILITY_POOL_ABI,
    "collSurplusPool": COLL_SURPLUS_POOL_ABI,
    "lusdToken": LUSD_TOKEN_ABI,
    "multiTroveGetter": MULTI_TROVE_GETTER_ABI,
}
