SCHEMA_VERSION = 1

SCHEMA_SQL = """
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS schema_version (
  version INTEGER PRIMARY KEY,
  applied_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS stocks (
  symbol TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  sector TEXT NOT NULL,
  industry TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS simulations (
  simulation_id TEXT PRIMARY KEY,
  symbol TEXT NOT NULL REFERENCES stocks(symbol),
  initial_capital NUMERIC NOT NULL,
  start_date TEXT NOT NULL,
  end_date TEXT NOT NULL,
  status TEXT NOT NULL CHECK (status IN ('active', 'completed', 'paused', 'cancelled')),
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_simulations_status_created
ON simulations(status, created_at DESC);

CREATE TABLE IF NOT EXISTS checkpoints (
  checkpoint_id TEXT PRIMARY KEY,
  simulation_id TEXT NOT NULL REFERENCES simulations(simulation_id),
  checkpoint_date TEXT NOT NULL,
  checkpoint_type TEXT NOT NULL CHECK (checkpoint_type IN ('initial', 'manual', 'auto_buy', 'auto_sell')),
  note TEXT NOT NULL DEFAULT '',
  created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_checkpoints_simulation_date
ON checkpoints(simulation_id, checkpoint_date);

CREATE TABLE IF NOT EXISTS conditions (
  condition_id TEXT PRIMARY KEY,
  checkpoint_id TEXT NOT NULL REFERENCES checkpoints(checkpoint_id),
  type TEXT NOT NULL CHECK (type IN ('buy', 'sell')),
  metric TEXT NOT NULL,
  value TEXT NOT NULL,
  is_active INTEGER NOT NULL DEFAULT 1,
  updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_conditions_checkpoint
ON conditions(checkpoint_id);

CREATE TABLE IF NOT EXISTS hypotheses (
  hypothesis_id TEXT PRIMARY KEY,
  checkpoint_id TEXT NOT NULL REFERENCES checkpoints(checkpoint_id),
  description TEXT NOT NULL,
  factor_type TEXT NOT NULL CHECK (factor_type IN ('positive', 'negative')),
  price_impact INTEGER NOT NULL CHECK (price_impact BETWEEN -5 AND 5),
  confidence_level INTEGER NOT NULL CHECK (confidence_level BETWEEN 1 AND 5),
  is_active INTEGER NOT NULL DEFAULT 1,
  updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_hypotheses_checkpoint
ON hypotheses(checkpoint_id);

CREATE TABLE IF NOT EXISTS stock_prices (
  stock_price_id TEXT PRIMARY KEY,
  symbol TEXT NOT NULL,
  price_date TEXT NOT NULL,
  open_price NUMERIC NOT NULL,
  close_price NUMERIC NOT NULL,
  high_price NUMERIC NOT NULL,
  low_price NUMERIC NOT NULL,
  volume INTEGER NOT NULL DEFAULT 0,
  last_updated TEXT NOT NULL,
  UNIQUE(symbol, price_date)
);

CREATE TABLE IF NOT EXISTS pnl_records (
  pnl_id TEXT PRIMARY KEY,
  checkpoint_id TEXT NOT NULL REFERENCES checkpoints(checkpoint_id),
  stock_price_id TEXT NOT NULL REFERENCES stock_prices(stock_price_id),
  position_size NUMERIC NOT NULL,
  realized_pl NUMERIC NOT NULL,
  unrealized_pl NUMERIC NOT NULL,
  recorded_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_pnl_records_checkpoint
ON pnl_records(checkpoint_id);

CREATE TABLE IF NOT EXISTS journals (
  journal_id TEXT PRIMARY KEY,
  simulation_id TEXT NOT NULL REFERENCES simulations(simulation_id),
  entry_date TEXT NOT NULL,
  content TEXT NOT NULL,
  created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS reviews (
  review_id TEXT PRIMARY KEY,
  simulation_id TEXT NOT NULL REFERENCES simulations(simulation_id),
  content TEXT NOT NULL,
  rating INTEGER NULL CHECK (rating IS NULL OR rating BETWEEN 1 AND 5),
  created_at TEXT NOT NULL
);
"""
