# Models module for the festival portal API
from festival_portal.models.festival import (
    Festival, UserProfile, UserRole, FestivalIntegration
)
from festival_portal.models.ledger import (
    TicketSale, LedgerEntry, Income, Expense, SaleCategory, SaleChannel,
    LedgerEntryCreate, IncomeCreate, ExpenseCreate
)
from festival_portal.models.sponsor import (
    Sponsor, SponsorDeliverable, SponsorStatus, SponsorLevel,
    SPONSOR_PIPELINE, pipeline_position, is_committed,
    SponsorCreate, SponsorStatusUpdate, DeliverableCreate, DeliverableUpdate
)
from festival_portal.models.sync import (
    SyncLog, SyncResult, SyncRunResponse, SyncStatus
)
from festival_portal.models.reports import (
    DailySales, TypeSales, ChannelSales, VatBucket, LedgerKind, BudgetActualRow,
    Forecast, SalesTotals, AmountTotals, SalesSummary, EconomySummary,
    ExportKind, ExportArtifact, DateWindow
)
