"""Log-mel spectrogram, model parameters and DTW word-timestamp alignment."""