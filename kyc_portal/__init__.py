# KYC portal credit scoring service
